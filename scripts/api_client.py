"""Lightweight REST client for the Showdown optimizer API."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import httpx


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the Showdown optimizer REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("players", type=Path, nargs="?", help="JSON array of players")
    parser.add_argument("--lineups", type=int, default=20, help="Number of lineups to request")
    parser.add_argument("--preset", default=None, help="Strategy preset key")
    parser.add_argument("--mode", default="mean", help="mean or ceiling")
    parser.add_argument("--list-models", action="store_true", help="List saved models and exit")
    parser.add_argument("--get-model", metavar="MODEL_ID", help="Fetch a specific model and exit")
    parser.add_argument("--seed-games", type=int, metavar="COUNT", help="Cache COUNT synthetic games and exit")
    parser.add_argument("--discover", action="store_true", help="Run a discovery cycle and exit")
    parser.add_argument("--backtest", action="store_true", help="Backtest over cached games and exit")
    args = parser.parse_args()

    # Discovery and backtests run synchronously on the server.
    with httpx.Client(base_url=args.base_url, timeout=None) as client:
        if args.list_models:
            resp = client.get("/models")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
            return
        if args.get_model:
            resp = client.get(f"/models/{args.get_model}")
            if resp.status_code == 404:
                raise SystemExit(f"model {args.get_model} not found")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
            return
        if args.seed_games:
            resp = client.post("/games/seed", json={"count": args.seed_games})
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
            return
        if args.discover:
            resp = client.post("/discovery", json={})
            if resp.status_code == 400:
                raise SystemExit(resp.json()["detail"])
            resp.raise_for_status()
            for model in resp.json()["models"]:
                print(f"{model['performance']['validation_mae']:8.3f}  {model['name']} ({model['id']})")
            return
        if args.backtest:
            payload = {"settings": {"n_lineups": args.lineups, "mode": args.mode}}
            resp = client.post("/backtest", json=payload)
            resp.raise_for_status()
            report = resp.json()
            print(f"Average top score {report['average_score']:.2f} over {report['total_games']} games")
            for warning in report["warnings"]:
                print(f"warning: {warning}")
            return

        if args.players is None:
            raise SystemExit("a players file is required unless using one of the model/game options")

        request = {
            "players": json.loads(args.players.read_text()),
            "lineups": args.lineups,
            "mode": args.mode,
            "preset": args.preset,
        }
        resp = client.post("/lineups", json=request)
        if resp.status_code == 400:
            raise SystemExit(resp.json()["detail"])
        resp.raise_for_status()
        batch = resp.json()

    for lineup in batch["lineups"]:
        names = ", ".join(
            f"{player['name']} (CPT)" if player["captain"] else player["name"] for player in lineup["players"]
        )
        print(f"{lineup['lineup_id']}  {lineup['projection']:7.2f}  ${lineup['salary']:,}  {names}")
    if batch["exhausted"]:
        print(f"Stopped early: {batch['message']}")


if __name__ == "__main__":
    main()
