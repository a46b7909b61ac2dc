"""
Command Line Interface for Screen OCR
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from PIL import Image

from .libs.onnx_ocr import OCRConfig, results_to_text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recognize text lines in a screenshot or image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print recognized lines
  python -m screen_ocr.cli capture.png

  # Save text and an annotated preview
  python -m screen_ocr.cli capture.png -o capture.txt --preview capture_boxes.png

  # Use local model files instead of the HuggingFace download
  python -m screen_ocr.cli capture.png --det-model det.onnx --rec-model rec.onnx --dict dict.txt

  # Show which model files are cached
  python -m screen_ocr.cli --status
        """
    )

    # Input/Output
    parser.add_argument(
        'input',
        type=str,
        nargs='?',
        help='Input image file path'
    )
    parser.add_argument(
        '-o', '--output',
        type=str,
        default=None,
        help='Output text file path (default: print to stdout)'
    )
    parser.add_argument(
        '--preview',
        type=str,
        default=None,
        help='Save an annotated copy of the input to this path'
    )

    # Model options
    parser.add_argument('--det-model', type=str, default=None, help='Detection ONNX model')
    parser.add_argument('--rec-model', type=str, default=None, help='Recognition ONNX model')
    parser.add_argument('--dict', type=str, default=None, help='Character dictionary file')
    parser.add_argument(
        '--status',
        action='store_true',
        help='Show model cache status and exit'
    )
    parser.add_argument(
        '--download',
        action='store_true',
        help='Download all model files and exit'
    )

    # Detection tuning
    parser.add_argument(
        '--limit-side-len',
        type=int,
        default=None,
        help='Longest image side fed to the detector (default: 960)'
    )
    parser.add_argument(
        '--box-thresh',
        type=float,
        default=None,
        help='Minimum region score (default: 0.6)'
    )
    parser.add_argument(
        '--unclip-ratio',
        type=float,
        default=None,
        help='Region expansion ratio (default: 1.5)'
    )

    # Verbosity
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    return parser


def build_config(args: argparse.Namespace) -> OCRConfig:
    """Apply command line overrides on top of the default configuration."""
    config = OCRConfig()
    overrides = {}
    if args.limit_side_len is not None:
        overrides['det_limit_side_len'] = args.limit_side_len
    if args.box_thresh is not None:
        overrides['det_db_box_thresh'] = args.box_thresh
    if args.unclip_ratio is not None:
        overrides['det_db_unclip_ratio'] = args.unclip_ratio
    if overrides:
        config.detector = replace(config.detector, **overrides)
    return config


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.status:
        from .models import registry
        print(registry.status())
        return 0

    if args.download:
        from .models import registry
        try:
            for key, path in registry.download_group("paddle_ocr").items():
                print(f"{key:<12} {path}")
        except Exception as e:
            print(f"Error: download failed: {e}", file=sys.stderr)
            return 1
        return 0

    if args.input is None:
        parser.print_usage(sys.stderr)
        print("Error: an input image is required", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file '{args.input}' not found", file=sys.stderr)
        return 1

    if args.verbose:
        print("=" * 70)
        print("Screen OCR CLI")
        print("=" * 70)
        print(f"Input:  {input_path}")
        print(f"Output: {args.output or 'stdout'}")
        if args.preview:
            print(f"Preview: {args.preview}")
        print("=" * 70)
        print()

    try:
        from .pipeline import ScreenOCR

        if args.verbose:
            print("Initializing OCR...")
        ocr = ScreenOCR(
            det_model_path=args.det_model,
            rec_model_path=args.rec_model,
            char_dict_path=args.dict,
            config=build_config(args),
        )

        with Image.open(input_path) as image:
            results = ocr.perform_ocr(image)

            if not results:
                print(f"No text found: {ocr.last_error_message}", file=sys.stderr)

            text = results_to_text(results)
            if args.output:
                Path(args.output).write_text(text, encoding='utf-8')
                print(f"Saved to: {args.output}")
            else:
                print(text)

            if args.preview:
                from .preview import generate_preview
                generate_preview(image, results, args.preview, verbose=args.verbose)

        if args.verbose:
            print(f"\nRecognized {len(results)} lines")
        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
