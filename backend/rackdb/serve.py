"""
Launch the RackDB API under uvicorn.

Environment provides the defaults (HOST, PORT, RELOAD, LOG_LEVEL,
FORWARDED_ALLOW_IPS, SSL_*); command-line flags override them:

    rackdb-serve --port 8080 --reload
"""

import argparse
import os
from typing import Dict, List, Optional

import uvicorn

_TRUTHY = {"1", "true", "yes", "on"}
_SSL_ENV = {
    "ssl_certfile": "SSL_CERTFILE",
    "ssl_keyfile": "SSL_KEYFILE",
    "ssl_ca_certs": "SSL_CA_CERTS",
    "ssl_keyfile_password": "SSL_KEYFILE_PASSWORD",
}


def _ssl_options() -> Dict[str, str]:
    return {option: os.environ[env] for option, env in _SSL_ENV.items() if os.getenv(env)}


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the RackDB inventory API.")
    ap.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    ap.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    ap.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() in _TRUTHY,
        help="Restart on code changes (development only).",
    )
    ap.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info"))
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)

    uvicorn.run(
        "rackdb.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
