from phonenumbers import parse, is_valid_number, NumberParseException, format_number, PhoneNumberFormat


def strip_text(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def normalize_phone_or_none(v: str | None, default_region: str | None = None) -> str | None:
    if v is None or not v.strip():
        return None
    try:
        num = parse(v, default_region)
    except NumberParseException:
        raise ValueError("Invalid phone number")
    if not is_valid_number(num):
        raise ValueError("Invalid phone number")
    return format_number(num, PhoneNumberFormat.E164)
