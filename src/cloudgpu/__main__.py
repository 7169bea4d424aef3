"""Allow ``python -m cloudgpu``."""

from cloudgpu.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
