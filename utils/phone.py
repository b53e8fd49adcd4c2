import re

def normalize_phone_number(phone_number: str, default_country_code: str = "1") -> str:
    """
    Strip everything but digits, prefix the default country code when exactly
    10 digits remain, and return the number in +<digits> form.
    """
    cleaned = re.sub(r"\D", "", phone_number or "")
    if len(cleaned) == 10:
        cleaned = default_country_code + cleaned
    return "+" + cleaned
