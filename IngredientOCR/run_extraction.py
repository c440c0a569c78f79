"""
Extract ingredients from a recipe photograph and print them.

Uses Tesseract for recognition. Quantities that could not be read or
recovered are marked with "?" and must be confirmed.

Usage:
    python -m IngredientOCR.run_extraction path/to/recipe.jpg
"""

import logging
import os
import sys

from IngredientOCR import config
from IngredientOCR.pipeline import process_image
from IngredientOCR.utils import IngredientOCRError


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if len(sys.argv) < 2:
        print("Usage: python -m IngredientOCR.run_extraction <image_path>")
        print("Example: python -m IngredientOCR.run_extraction recipe.jpg")
        print("Supported formats: PNG, JPEG, TIFF, BMP, WEBP")
        sys.exit(1)

    image_path = sys.argv[1]

    if not os.path.exists(image_path):
        print(f"Error: File not found: {image_path}")
        sys.exit(1)

    print(f"Processing: {image_path}")

    try:
        result = process_image(image_path)
    except IngredientOCRError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\nConfidence: {result.confidence:.0%}")
    print(
        f"Ingredients: {len(result.records)} "
        f"(flagged {result.flagged_count}, recovered {result.recovered_count})"
    )

    print("=" * 50)
    for record in result.records:
        quantity = "?" if record.requires_confirmation else record.quantity
        unit = f" {record.unit}" if record.unit else ""
        line = f"{record.line_number:>3}. {quantity}{unit} {record.ingredient_name}"
        if record.requires_confirmation:
            line += "  [confirm quantity]"
            if record.suggested_quantity:
                line += f" (suggested: {record.suggested_quantity})"
        print(line)
    print("=" * 50)

    if result.confirmation_count:
        print(f"{result.confirmation_count} quantity(ies) need confirmation")


if __name__ == "__main__":
    main()
