#!/usr/bin/env python3
"""
Medication Label Verification CLI.

Checks one label photograph (or already-recognized text) against the expected
patient, medication and scheduled time, and prints the extracted fields and
the verdict.

Usage:
    # Verify a photographed label
    python scripts/verify_label.py --image pouch.jpg \\
        --patient "Doe, John" --medication Lisinopril --dosage 10mg --time "9:00 AM"

    # Skip OCR and verify text directly
    python scripts/verify_label.py --text "JOHN DOE\\nLISINOPRIL 10MG\\n9:00 AM" \\
        --patient "Doe, John" --medication Lisinopril --dosage 10mg --time "9:00 AM"

Exit code is 0 when the label verifies and 1 otherwise.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from medscan.common.errors import MedScanError  # noqa: E402
from medscan.ocr import OCRReading, create_recognizer  # noqa: E402
from medscan.ocr import get_default_config as get_default_ocr_config  # noqa: E402
from medscan.ocr import load_config as load_ocr_config  # noqa: E402
from medscan.verification import ExpectedLabel, FieldKind, LabelVerifier  # noqa: E402
from medscan.verification import load_config as load_verification_config  # noqa: E402

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify a medication label against the expected record",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/verify_label.py --image pouch.jpg --patient "Doe, John" \\
      --medication Lisinopril --dosage 10mg --time "9:00 AM"

  python scripts/verify_label.py --text "JOHN DOE\\nLISINOPRIL 10MG\\n9:00 AM" \\
      --patient "Doe, John" --medication Lisinopril --dosage 10mg --time "9:00 AM"
        """,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", type=Path, help="Label photograph (JPEG/PNG)")
    source.add_argument(
        "--text",
        type=str,
        help="Recognized label text; skips OCR (use \\n between lines)",
    )

    parser.add_argument(
        "--patient", type=str, required=True, help='Expected patient name ("Last, First")'
    )
    parser.add_argument("--medication", type=str, required=True, help="Expected medication name")
    parser.add_argument("--dosage", type=str, required=True, help="Expected dosage (e.g., 10mg)")
    parser.add_argument(
        "--time", type=str, required=True, help='Scheduled time as printed (e.g., "9:00 AM")'
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with 'ocr' and/or 'verification' sections (default: bundled)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main() -> int:
    """Main entry point for label verification."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    expected = ExpectedLabel(
        medication_name=args.medication,
        dosage=args.dosage,
        patient_name=args.patient,
        scheduled_time=args.time,
    )

    try:
        if args.config is not None:
            verifier = LabelVerifier(config=load_verification_config(args.config))
        else:
            verifier = LabelVerifier()

        if args.text is not None:
            reading = OCRReading(text=args.text.replace("\\n", "\n"), confidence=1.0)
        else:
            if not args.image.exists():
                print(f"❌ Image not found: {args.image}")
                return 1
            if args.config is not None:
                ocr_config = load_ocr_config(args.config)
            else:
                ocr_config = get_default_ocr_config()
            recognizer = create_recognizer(ocr_config)
            reading = recognizer.recognize(args.image.read_bytes())
    except (MedScanError, FileNotFoundError, ValueError) as e:
        logger.error(f"Verification could not run: {e}")
        print(f"❌ Error: {e}")
        return 1

    result = verifier.verify(reading, expected)
    extracted = result.extracted

    print("=" * 60)
    print("Recognized text")
    print("=" * 60)
    print(reading.text or "(none)")
    print(f"OCR confidence: {reading.confidence:.2f}")
    print()
    print("Extracted fields")
    print("-" * 60)
    print(f"  Patient:     {extracted.patient_name or '-'}")
    print(f"  Medication:  {extracted.medication_name or '-'}")
    print(f"  Dosage:      {extracted.dosage or '-'}")
    print(f"  Time:        {extracted.printed_time or '-'}")
    print(f"  Instructions:{' ' + extracted.instructions if extracted.instructions else ' -'}")
    print(f"  Pharmacy:    {extracted.pharmacy or '-'}")
    print(f"  Prescriber:  {extracted.prescriber or '-'}")
    print()
    print("Field matches")
    print("-" * 60)
    verdict = result.verdict
    for kind in FieldKind:
        match = verdict.result_for(kind)
        required = " (required)" if kind in verifier.validator.required_fields else ""
        if match is None:
            print(f"  ✗ {kind.value}{required}: not checked")
            continue
        mark = "✓" if match.passed else "✗"
        print(f"  {mark} {kind.value}{required}: score={match.score:.2f} ({match.method.value})")
    print()
    print(
        f"Verdict: {'PASS' if result.is_pass() else 'FAIL'} "
        f"[{result.rejection_reason.code}] "
        f"{verdict.passed_checks}/{verdict.required_checks} required, "
        f"{verdict.score}/{len(FieldKind)} fields, confidence={verdict.confidence:.2f}"
    )

    return 0 if result.is_pass() else 1


if __name__ == "__main__":
    sys.exit(main())
