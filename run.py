from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from bgmatte.codec import get_codec
from bgmatte.composite import parse_color
from bgmatte.config import FEATHER_RADIUS, GROW_THRESHOLD, TRIMAP_RADIUS, MattingParams
from bgmatte.errors import BackgroundRemovalFailed, DecodeError
from bgmatte.model import load_segmentation_model
from bgmatte.pipeline import build_report, process_image
from bgmatte.remote import RemoteRemover

logger = logging.getLogger("bgmatte.run")


def _iter_images(input_dir: Path):
    exts = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}
    for p in sorted(input_dir.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def main() -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Background removal with a local matting fallback.")
    parser.add_argument("--input", required=True, type=str, help="Input directory containing images.")
    parser.add_argument("--output", required=True, type=str, help="Output directory for PNGs (+ reports/).")
    parser.add_argument("--model", default=None, type=str, help="Optional model: 'hf:ZhengPeng7/BiRefNet' or a TorchScript path.")
    parser.add_argument("--device", default=None, type=str, help="Torch device for --model (default: cpu).")
    parser.add_argument("--background", default="transparent", type=str, help="'transparent' or a hex colour like #FFFFFF.")
    parser.add_argument("--codec", default="pillow", choices=["pillow", "opencv"], help="Image codec backend.")
    parser.add_argument("--threshold", default=GROW_THRESHOLD, type=float, help="Region-grower colour threshold.")
    parser.add_argument("--trimap-radius", default=TRIMAP_RADIUS, type=int, help="Unknown band radius in pixels.")
    parser.add_argument("--feather-radius", default=FEATHER_RADIUS, type=float, help="Feather radius in pixels.")
    parser.add_argument("--no-remote", action="store_true", help="Skip the remote service even if configured.")
    parser.add_argument("--log-level", default="WARNING", type=str, help="Logging level.")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    input_dir = Path(args.input)
    output_dir = Path(args.output)
    if not input_dir.exists():
        raise FileNotFoundError(f"Input dir not found: {input_dir}")

    # Reject a bad colour up front.
    parse_color(args.background)
    codec = get_codec(args.codec)
    params = MattingParams(
        threshold=args.threshold,
        trimap_radius=args.trimap_radius,
        feather_radius=args.feather_radius,
    )

    model = None
    if args.model:
        loaded = load_segmentation_model(args.model, args.device)
        if loaded.ok:
            model = loaded.model
        else:
            logger.warning("Continuing without a model: %s", loaded.error)
    remote = None if args.no_remote else RemoteRemover.from_env()

    images = list(_iter_images(input_dir))
    if not images:
        print(f"No images found under {input_dir}")
        return 0

    report_dir = output_dir / "reports"
    report_dir.mkdir(parents=True, exist_ok=True)
    failed = 0

    total0 = time.perf_counter()
    with open(output_dir / "manifest.jsonl", "a", encoding="utf-8") as manifest_fp:
        for img_path in tqdm(images, desc="Processing", unit="img"):
            rel = img_path.relative_to(input_dir)
            out_path = (output_dir / rel).with_suffix(".png")
            try:
                result, timings = process_image(
                    str(img_path),
                    str(out_path),
                    model=model,
                    remote=remote,
                    background=args.background,
                    codec=codec,
                    params=params,
                )
            except (BackgroundRemovalFailed, DecodeError) as e:
                failed += 1
                logger.error("%s: %s", img_path.name, e)
                continue

            report = build_report(str(img_path), str(out_path), result, timings, background=args.background)
            payload = report.model_dump()
            report_path = (report_dir / rel).with_suffix(".json")
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            manifest_fp.write(json.dumps(payload, sort_keys=True) + "\n")

            print(
                f"{img_path.name}: source={result.source} total={timings.total_s:.3f}s "
                f"(dec={timings.decode_s:.3f}s rm={timings.removal_s:.3f}s comp={timings.composite_s:.3f}s)"
            )

    if model is not None:
        model.release()

    total1 = time.perf_counter()
    print(f"Done. {len(images) - failed}/{len(images)} images in {total1-total0:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
