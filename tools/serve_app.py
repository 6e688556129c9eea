from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from asset_server.locator import DirectoryResourceLocator
from diagnostics.logging_setup import add_console_handler, configure_logging
from engine_host.config import default_host_config, get_app_root, load_host_config
from engine_host.context import EngineContext
from engine_host.host import EngineHost


def probe(base_url: str, timeout_s: float = 5.0) -> int:
    try:
        with urlopen(base_url + "/", timeout=timeout_s) as response:
            response.read()
            return int(response.status)
    except HTTPError as exc:
        return int(exc.code)
    except URLError as exc:
        sys.stderr.write(f"Probe failed: {exc.reason}\n")
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve a packaged web app over loopback HTTP.")
    parser.add_argument("--root", type=Path, default=None, help="Packaged app directory (default: config app_root).")
    parser.add_argument("--config", type=Path, default=None, help="Host config JSON (default: built-in).")
    parser.add_argument("--start-page", default=None, help="Override the configured start page.")
    parser.add_argument("--probe", action="store_true", help="Fetch the start page once and exit.")
    parser.add_argument("--verbose", action="store_true", help="Log to the console.")
    args = parser.parse_args(argv)

    configure_logging()
    if args.verbose:
        add_console_handler()

    config = load_host_config(args.config) if args.config else default_host_config()
    if args.start_page:
        config["start_page"] = args.start_page

    # a relative app_root is taken from the config file's directory
    config_dir = args.config.resolve().parent if args.config else Path.cwd()
    app_root = args.root if args.root is not None else get_app_root(config, config_dir)

    locator = DirectoryResourceLocator(app_root, config["base_prefix"])
    context = EngineContext(config=config)
    host = EngineHost(locator, config=config, context=context)
    base_url = host.start()
    if base_url is None:
        sys.stderr.write("Local server could not be started.\n")
        context.shutdown()
        return 1

    sys.stdout.write(f"Serving {app_root} at {base_url}\n")
    sys.stdout.flush()
    try:
        if args.probe:
            status = probe(base_url)
            sys.stdout.write(f"GET / -> {status}\n")
            return 0 if status == 200 else 1
        while True:  # pragma: no cover - interactive
            time.sleep(1.0)
    except KeyboardInterrupt:  # pragma: no cover - interactive
        return 0
    finally:
        host.destroy()
        context.shutdown()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
