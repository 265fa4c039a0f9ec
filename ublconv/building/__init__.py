"""Forward mapping: canonical invoice -> UBL document tree."""
