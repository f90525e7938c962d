"""tagcalc -- tag-aware single-line formula buffer and safe arithmetic evaluator."""

__version__ = "0.3.0"
__core_api_version__ = 1
