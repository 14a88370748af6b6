#!/usr/bin/env python3
"""
Command-line host for the Real/Fake Image Classifier.

Feeds one or more image files through the upload pipeline exactly as a
UI would: each file becomes a file-selection event, the state controller
runs it, and the final state, scores and any error message are collected.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path


# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from realfake_classifier.inference import ClassifierProvider, ModelLoadError
from realfake_classifier.upload import (
    FileSelectionEvent,
    SelectedFile,
    StateController,
    UploadState,
)
from realfake_classifier.utils.config import Config
from realfake_classifier.utils.logging import setup_logging


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Classify images as fake or real",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Configuration
    parser.add_argument("--config", "-c", type=str, help="Path to configuration file")

    # Model
    parser.add_argument(
        "--checkpoint", "-m", type=str, help="Path to TorchScript model checkpoint"
    )

    parser.add_argument(
        "--input-layout",
        type=str,
        choices=["nhwc", "nchw"],
        help="Input layout the model expects",
    )

    # Input
    parser.add_argument(
        "--input",
        "-i",
        type=str,
        nargs="+",
        required=True,
        help="Image file(s) to classify",
    )

    parser.add_argument(
        "--mime-type",
        type=str,
        help="Override the MIME type guessed from the file name",
    )

    # Output
    parser.add_argument(
        "--output", "-o", type=str, help="Path to save results (JSON format)"
    )

    parser.add_argument(
        "--device",
        type=str,
        choices=["auto", "cpu", "cuda"],
        help="Device to use for inference",
    )

    # System
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    return parser.parse_args()


def result_label(state: UploadState, class_names: list[str]) -> str | None:
    """Map a result state to its configured class name."""
    if not state.is_result:
        return None
    return class_names[0 if state == UploadState.RESULT_FAKE else 1]


def setup_config(args: argparse.Namespace) -> Config:
    """Build configuration from file and command-line overrides."""
    config = Config.from_yaml(args.config) if args.config else Config()

    config.update_from_args(
        {
            "inference.checkpoint_path": args.checkpoint,
            "inference.device": args.device,
            "inference.input_layout": args.input_layout,
        }
    )

    if args.verbose:
        config.logging.log_level = "DEBUG"

    return config


async def classify_files(
    controller: StateController, paths: list[Path], mime_type: str | None
) -> list[dict]:
    """Run each file through the controller, one upload at a time."""
    results = []

    for path in paths:
        errors: list[str] = []
        controller.on_error = errors.append

        event = FileSelectionEvent.of(SelectedFile.from_path(path, mime_type))
        state = await controller.handle_selection(event)

        results.append(
            {
                "file": str(path),
                "state": state.value,
                "label": result_label(state, controller.config.inference.class_names),
                "scores": list(controller.scores),
                "error": errors[0] if errors else None,
            }
        )

    return results


def main():
    """Main inference function."""
    args = parse_arguments()
    config = setup_config(args)

    logger = setup_logging(
        log_level=config.logging.log_level,
        log_dir=config.logging.log_dir,
        use_tensorboard=config.logging.use_tensorboard,
        experiment_name=config.logging.experiment_name,
    )
    logger.info("Starting Real/Fake classification")

    paths = [Path(p) for p in args.input]
    missing = [p for p in paths if not p.is_file()]
    if missing:
        logger.error(f"Input files not found: {', '.join(str(p) for p in missing)}")
        sys.exit(1)

    provider = ClassifierProvider()
    try:
        provider.load(config.inference)
    except ModelLoadError as e:
        # Runs still go through the pipeline and report the model as unavailable
        logger.warning(f"Continuing without a model: {e}")

    controller = StateController(classifier_provider=provider, config=config)

    try:
        results = asyncio.run(classify_files(controller, paths, args.mime_type))
    except KeyboardInterrupt:
        logger.info("Inference interrupted by user")
        sys.exit(1)
    finally:
        logger.close()

    output = {
        "results": results,
        "performance": controller.engine.get_performance_stats(),
    }

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2, default=str)
        logger.info(f"Results saved to: {output_path}")

    print(f"\n{'=' * 50}")
    print("CLASSIFICATION SUMMARY")
    print(f"{'=' * 50}")
    for result in results:
        scores = ", ".join(f"{s:.4f}" for s in result["scores"]) or "-"
        line = f"{Path(result['file']).name}: {result['label'] or result['state']} [{scores}]"
        if result["error"]:
            line += f" ({result['error']})"
        print(line)
    print(f"{'=' * 50}")


if __name__ == "__main__":
    main()
