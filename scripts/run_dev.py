from __future__ import annotations

import os
import sys
from pathlib import Path

import uvicorn

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


if __name__ == "__main__":
    port = int(os.getenv("VB_PORT", "8790"))
    uvicorn.run("voicebed.backend.main:app", host="0.0.0.0", port=port, reload=False)
