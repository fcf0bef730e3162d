import json

import httpx

from riskwise.cli.api_client import build_parser, bulk, portfolio_update


def _client(handler) -> httpx.Client:
    return httpx.Client(base_url="http://riskwise.test", transport=httpx.MockTransport(handler))


def test_portfolio_update_sends_user_id_from_argument(tmp_path, capsys):
    body_file = tmp_path / "portfolio.json"
    body_file.write_text(json.dumps({"stocks": {"AAPL": {"shares": 3}}}))
    sent = {}

    def handler(request: httpx.Request) -> httpx.Response:
        sent["path"] = request.url.path
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "accepted"})

    args = build_parser().parse_args(["portfolio", "update", "alice", str(body_file)])
    with _client(handler) as client:
        assert args.func(client, args) == 0

    assert sent == {"path": "/update-portfolio", "body": {"stocks": {"AAPL": {"shares": 3}}, "userId": "alice"}}
    assert '"accepted"' in capsys.readouterr().out
    assert args.func is portfolio_update


def test_bulk_prints_one_line_per_ticker(capsys):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"results": {"MSFT": {"overall_risk_score": 3}, "AAPL": {"overall_risk_score": 7}}},
        )

    args = build_parser().parse_args(["bulk", "AAPL", "MSFT"])
    with _client(handler) as client:
        bulk(client, args)

    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in lines] == ["AAPL", "MSFT"]
    assert lines[0].endswith("7/10")
