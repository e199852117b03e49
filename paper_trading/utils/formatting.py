"""표시용 숫자 포맷 함수 (CLI 출력에서 사용)."""


def format_price(price: float) -> str:
    """$1,234.56 / $12.3456 / $0.001234. 가격 크기에 따라 소수 자릿수 조정."""
    if price < 0:
        return "-" + format_price(-price)
    if price >= 1000:
        return f"${price:,.2f}"
    if price >= 1:
        text = f"{price:,.4f}"
        # 최소 2자리, 최대 4자리
        whole, _, frac = text.partition(".")
        frac = frac.rstrip("0").ljust(2, "0")
        return f"${whole}.{frac}"
    text = f"{price:.6f}"
    whole, _, frac = text.partition(".")
    frac = frac.rstrip("0").ljust(4, "0")
    return f"${whole}.{frac}"


def format_percent(percent: float) -> str:
    sign = "+" if percent >= 0 else ""
    return f"{sign}{percent:.2f}%"


def format_large_number(num: float) -> str:
    if num >= 1e9:
        return f"${num / 1e9:.2f}B"
    if num >= 1e6:
        return f"${num / 1e6:.2f}M"
    if num >= 1e3:
        return f"${num / 1e3:.2f}K"
    return f"${num:.2f}"
