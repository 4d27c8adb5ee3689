from swucol.parsers.card_csv import parse_card_csv, strip_bom

__all__ = [
    "parse_card_csv",
    "strip_bom",
]
