from imfpay.utils.validators import (
    validate_email, parse_amount, generate_reference, clean_text, check_lengths,
)

__all__ = ["validate_email", "parse_amount", "generate_reference", "clean_text", "check_lengths"]
