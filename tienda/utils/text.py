import re
import time
import unicodedata


def generate_slug(text: str) -> str:
    """'Anillo Corazón Dorado' -> 'anillo-corazon-dorado'."""
    s = unicodedata.normalize("NFD", (text or "").lower())
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Mn")
    s = re.sub(r"[^a-z0-9\s-]", "", s).strip()
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"-+", "-", s)
    return s or f"product-{int(time.time() * 1000)}"


def product_id_for(name: str) -> str:
    return f"{generate_slug(name)}-{int(time.time() * 1000)}"
