from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from voicebed.backend.audio.buffer import AudioBuffer  # noqa: E402
from voicebed.backend.audio.mixer import DEFAULT_OVERLAY_GAIN, mix  # noqa: E402
from voicebed.backend.audio.synth import BACKGROUND_KINDS, render_background  # noqa: E402
from voicebed.backend.audio.wav_encoder import encode_wav  # noqa: E402


def _test_tone(duration: float, sample_rate: int, frequency_hz: float) -> AudioBuffer:
    t = np.arange(int(round(duration * sample_rate)), dtype=np.float64) / sample_rate
    wav = (0.18 * np.sin(2.0 * np.pi * frequency_hz * t)).astype(np.float32)
    return AudioBuffer(wav.reshape(1, -1), sample_rate)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render an ambient bed to a 16-bit WAV file")
    parser.add_argument("kind", choices=list(BACKGROUND_KINDS))
    parser.add_argument("--duration", type=float, default=6.0)
    parser.add_argument("--sample-rate", type=int, default=24000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument(
        "--under-tone",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="mix the bed under a mono test tone, the way generated speech is mixed",
    )
    parser.add_argument("--tone-hz", type=float, default=220.0)
    parser.add_argument("--gain", type=float, default=DEFAULT_OVERLAY_GAIN)
    parser.add_argument("--out", default="bed.wav")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    if args.duration <= 0:
        print("--duration must be positive", file=sys.stderr)
        return 2
    rng = np.random.default_rng(args.seed)
    bed = render_background(args.kind, args.duration, args.sample_rate, rng=rng)
    result = bed
    if args.under_tone:
        result = mix(_test_tone(args.duration, args.sample_rate, args.tone_hz), bed, args.gain)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(encode_wav(result))
    print(
        json.dumps(
            {
                "out": str(out.resolve()),
                "kind": args.kind,
                "channels": result.channel_count,
                "frames": result.frame_count,
                "sample_rate": result.sample_rate,
                "peak": round(float(np.max(np.abs(result.samples))) if result.frame_count else 0.0, 4),
            },
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
