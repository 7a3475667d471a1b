#!/usr/bin/env python3
"""schemagraph CLI - compile, summarize and check schema diagrams, or serve the API."""

import argparse
import json
import logging
import os
import sys

import yaml

from .analysis import summarize_graph
from .config import load_settings
from .pipeline import generate_diagram
from .validation import validate_graph, validation_summary

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error(message):
    _json_out({"status": "error", "error": message}, code=1)


def _load_document(path):
    """Read a JSON or YAML document from a file, or from stdin for '-'."""
    try:
        if path == "-":
            text = sys.stdin.read()
        else:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
    except OSError as e:
        _error(f"Cannot read {path}: {e}")

    try:
        if path.endswith((".yaml", ".yml")):
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        _error(f"Cannot parse {path}: {e}")


def _visibility(args):
    """Visibility map from --visibility plus repeated --expand/--collapse."""
    state = {}
    if args.visibility:
        try:
            loaded = json.loads(args.visibility)
        except json.JSONDecodeError as e:
            _error(f"--visibility is not valid JSON: {e}")
        if not isinstance(loaded, dict):
            _error("--visibility must be a JSON object")
        state.update(loaded)
    for path in args.expand or []:
        state[path] = "expanded"
    for path in args.collapse or []:
        state[path] = "collapsed"
    return state


def _settings(args):
    overrides = {"compile": {}, "truncation": {}, "collision": {}}
    if args.max_depth is not None:
        overrides["compile"]["max_depth"] = args.max_depth
    if args.max_individual is not None:
        overrides["compile"]["max_individual"] = args.max_individual
    if args.grouping_mode:
        overrides["compile"]["grouping_mode"] = args.grouping_mode
    if args.truncate:
        overrides["truncation"]["enabled"] = True
    if args.no_collisions:
        overrides["collision"]["enabled"] = False
    try:
        return load_settings().merged(overrides)
    except ValueError as e:
        _error(f"Invalid settings: {e}")


def _graph(args):
    document = _load_document(args.file)
    return generate_diagram(document, _visibility(args), _settings(args))


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_compile(args):
    graph = _graph(args)
    _json_out({"status": "ok", **graph.to_json_dict()})


def cmd_summary(args):
    graph = _graph(args)
    _json_out({"status": "ok", "summary": summarize_graph(graph, top_n=args.top).to_dict()})


def cmd_check(args):
    graph = _graph(args)
    settings = _settings(args)
    issues = validate_graph(graph, settings.collision.min_distance if settings.collision.enabled else None)
    summary = validation_summary(issues)
    _json_out(
        {"status": "ok", "issues": [i.to_dict() for i in issues], "summary": summary},
        code=0 if summary["valid"] else 2,
    )


def cmd_serve(args):
    import uvicorn

    uvicorn.run("schemagraph_server.main:app", host=args.host, port=args.port, reload=args.reload)


def _add_graph_args(p):
    p.add_argument("file", help="JSON or YAML document, or '-' for stdin")
    p.add_argument("--visibility", default=None, help="JSON object of path -> expanded/collapsed")
    p.add_argument("--expand", action="append", metavar="PATH")
    p.add_argument("--collapse", action="append", metavar="PATH")
    p.add_argument("--max-depth", type=int, default=None)
    p.add_argument("--max-individual", type=int, default=None)
    p.add_argument("--grouping-mode", choices=["expanded", "grouped"], default=None)
    p.add_argument("--truncate", action="store_true", help="Elide pass-through chains")
    p.add_argument("--no-collisions", action="store_true", help="Skip collision resolution")


def build_parser():
    parser = argparse.ArgumentParser(prog="schemagraph", description="Schema diagram compiler")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("compile", help="Print the positioned graph")
    _add_graph_args(p)

    p = sub.add_parser("summary", help="Print a summary of the graph")
    _add_graph_args(p)
    p.add_argument("--top", type=int, default=5)

    p = sub.add_parser("check", help="Check graph integrity")
    _add_graph_args(p)

    p = sub.add_parser("serve", help="Run the HTTP/WebSocket API")
    p.add_argument("--host", default=os.environ.get("SCHEMAGRAPH_HOST", DEFAULT_HOST))
    p.add_argument("--port", type=int, default=int(os.environ.get("SCHEMAGRAPH_PORT", DEFAULT_PORT)))
    p.add_argument("--reload", action="store_true")

    return parser


def main(argv=None):
    logging.basicConfig(
        level=os.environ.get("SCHEMAGRAPH_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)

    cmd_map = {
        "compile": cmd_compile,
        "summary": cmd_summary,
        "check": cmd_check,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
