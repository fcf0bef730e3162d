"""Command-line client for a running RiskWise API.

Examples:
  poetry run riskwise-cli health
  poetry run riskwise-cli portfolio update alice portfolio.json
  poetry run riskwise-cli portfolio get alice
  poetry run riskwise-cli risk AAPL -v
  poetry run riskwise-cli bulk AAPL MSFT NVDA
  poetry run riskwise-cli webhook TSLA --reason "CEO resigned"
  poetry run riskwise-cli events alice --messages 5
"""
import argparse
import json
import sys
import time
from pathlib import Path

import httpx

SSE_PREFIX = "data: "


def _dump(payload: object) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _show(response: httpx.Response) -> int:
    response.raise_for_status()
    _dump(response.json())
    return 0


def health(client: httpx.Client, _: argparse.Namespace) -> int:
    return _show(client.get("/"))


def portfolio_get(client: httpx.Client, args: argparse.Namespace) -> int:
    return _show(client.get(f"/portfolio/{args.user_id}"))


def portfolio_update(client: httpx.Client, args: argparse.Namespace) -> int:
    body = json.loads(Path(args.file).read_text()) | {"userId": args.user_id}
    return _show(client.post("/update-portfolio", json=body))


def portfolio_delete(client: httpx.Client, args: argparse.Namespace) -> int:
    return _show(client.delete(f"/portfolio/{args.user_id}"))


def risk(client: httpx.Client, args: argparse.Namespace) -> int:
    response = client.get(f"/risk/{args.ticker}")
    response.raise_for_status()
    result = response.json()
    print(f"{result['symbol']}: {result['overall_risk_score']}/10")
    if args.verbose:
        _dump({"factors": result.get("factors"), "explanation": result.get("explanation")})
    return 0


def bulk(client: httpx.Client, args: argparse.Namespace) -> int:
    response = client.post("/risk/bulk", json={"tickers": args.tickers})
    response.raise_for_status()
    for symbol, result in sorted(response.json()["results"].items()):
        print(f"{symbol:<8}{result['overall_risk_score']:>3}/10")
    return 0


def webhook(client: httpx.Client, args: argparse.Namespace) -> int:
    return _show(client.post("/webhook/event", json={"ticker": args.ticker, "reason": args.reason}))


def events(client: httpx.Client, args: argparse.Namespace) -> int:
    """Tail a user's live stream until --messages or --duration is reached."""
    received = 0
    stop_at = time.monotonic() + args.duration if args.duration else None
    with client.stream("GET", f"/events/{args.user_id}", timeout=None) as response:
        response.raise_for_status()
        for line in response.iter_lines():
            if line.startswith(SSE_PREFIX):
                _dump(json.loads(line[len(SSE_PREFIX):]))
                received += 1
            if args.messages is not None and received >= args.messages:
                break
            if stop_at is not None and time.monotonic() >= stop_at:
                break
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="riskwise-cli", description="RiskWise API client")
    parser.add_argument("--base-url", default="http://127.0.0.1:8001")
    parser.add_argument("--timeout", type=float, default=30.0, help="seconds")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("health", help="health check").set_defaults(func=health)

    portfolio = commands.add_parser("portfolio", help="stored portfolios")
    actions = portfolio.add_subparsers(dest="action", required=True)
    for name, func, help_text in (
        ("get", portfolio_get, "show a portfolio with stops and alert history"),
        ("update", portfolio_update, "submit holdings from a JSON file"),
        ("delete", portfolio_delete, "stop monitoring a portfolio"),
    ):
        action = actions.add_parser(name, help=help_text)
        action.add_argument("user_id")
        if name == "update":
            action.add_argument("file", help="JSON with stocks, userEmail, maxLossPercent")
        action.set_defaults(func=func)

    cmd = commands.add_parser("risk", help="score one ticker")
    cmd.add_argument("ticker")
    cmd.add_argument("-v", "--verbose", action="store_true")
    cmd.set_defaults(func=risk)

    cmd = commands.add_parser("bulk", help="score several tickers")
    cmd.add_argument("tickers", nargs="+")
    cmd.set_defaults(func=bulk)

    cmd = commands.add_parser("webhook", help="report an external event")
    cmd.add_argument("ticker")
    cmd.add_argument("--reason")
    cmd.set_defaults(func=webhook)

    cmd = commands.add_parser("events", help="tail a user's live stream")
    cmd.add_argument("user_id")
    cmd.add_argument("--messages", type=int, metavar="N")
    cmd.add_argument("--duration", type=float, metavar="SECS")
    cmd.set_defaults(func=events)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        with httpx.Client(base_url=args.base_url.rstrip("/"), timeout=args.timeout) as client:
            return args.func(client, args)
    except httpx.HTTPStatusError as exc:
        detail = exc.response.text or exc.response.reason_phrase
        print(f"{exc.request.method} {exc.request.url.path} -> {exc.response.status_code}: {detail}", file=sys.stderr)
        return 1
    except (httpx.RequestError, OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
