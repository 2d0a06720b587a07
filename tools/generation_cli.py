#!/usr/bin/env python3
"""
Deck Generation - CLI Debug Tool

Usage:
    python tools/generation_cli.py generate "Topic" [--strategy ID] [--slides N|auto]
                                              [--no-images] [--url URL] [--json]
    python tools/generation_cli.py recover FILE|-

`generate` talks to a running service over /ws and prints status messages as
they arrive; Ctrl-C sends `cancel`. `recover` runs the RecoveryEngine locally
on raw model output and prints the recovered document.
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path

import websockets

# Allow running as `python tools/generation_cli.py` from the repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

# ANSI color codes
COLORS = {
    'reset': '\033[0m',
    'red': '\033[91m',
    'green': '\033[92m',
    'yellow': '\033[93m',
    'magenta': '\033[95m',
    'cyan': '\033[96m',
    'gray': '\033[90m',
}


def color(text, color_name):
    return f"{COLORS.get(color_name, '')}{text}{COLORS['reset']}"


def timestamp():
    return datetime.now().strftime("%H:%M:%S")


def print_message(message, show_json=False):
    """Pretty-print a server message."""
    ts = color(f"[{timestamp()}]", 'gray')
    msg_type = message.get('type')
    payload = message.get('payload', {})

    if msg_type == 'status':
        print(f"{ts} {color('STATUS:', 'magenta')} [{payload.get('stage')}] {payload.get('text')}")

    elif msg_type == 'result':
        document = payload.get('document', {})
        record = payload.get('record', {})
        slides = document.get('slides', [])
        print(f"{ts} {color('RESULT:', 'green')} '{document.get('title')}' - {len(slides)} slides "
              f"(strategy={record.get('strategyId')}, recovery level={record.get('recoveryLevel')})")
        for slide in slides:
            print(f"    {color(slide.get('id'), 'cyan')} {slide.get('title', '')}")

    elif msg_type == 'error':
        print(f"{ts} {color('ERROR:', 'red')} {payload.get('code')}: {payload.get('message')}")

    elif msg_type == 'cancelled':
        print(f"{ts} {color('CANCELLED:', 'yellow')} {payload.get('request_id')}")

    else:
        print(f"{ts} {color(f'{str(msg_type).upper()}:', 'gray')} {str(payload)[:200]}")

    if show_json:
        print(json.dumps(message, indent=2, ensure_ascii=False))


def build_request(args):
    request = {
        'topic': args.topic,
        'slide_count': 'auto' if args.slides == 'auto' else int(args.slides),
        'include_images': not args.no_images,
    }
    if args.strategy:
        request['strategy_id'] = args.strategy
    if args.purpose:
        request['purpose'] = args.purpose
    return request


async def generate(args):
    """Send one generate message and print messages until the run ends."""
    print(color(f"Connecting to {args.url}", 'gray'))
    async with websockets.connect(args.url, max_size=None) as ws:
        await ws.send(json.dumps({'type': 'generate', 'request': build_request(args)}))
        try:
            async for raw in ws:
                message = json.loads(raw)
                print_message(message, show_json=args.json and message.get('type') != 'status')
                if message.get('type') in ('result', 'error', 'cancelled'):
                    return 0 if message['type'] == 'result' else 1
        except asyncio.CancelledError:
            print(color("\nCancelling...", 'yellow'))
            await ws.send(json.dumps({'type': 'cancel'}))
            print_message(json.loads(await ws.recv()))
            raise
    return 1


def recover(args):
    """Run the RecoveryEngine on a file (or stdin)."""
    from src.core.recovery_engine import RecoveryEngine

    raw = sys.stdin.read() if args.file == '-' else Path(args.file).read_text(encoding='utf-8')
    outcome = RecoveryEngine().recover_with_outcome(raw)
    print(color(f"Recovered at level {int(outcome.level)} ({outcome.level.name})", 'green'), file=sys.stderr)
    for action in outcome.actions:
        print(color(f"  - {action}", 'gray'), file=sys.stderr)
    print(outcome.document.to_json(indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="Deck generation debug tool")
    subparsers = parser.add_subparsers(dest='command', required=True)

    gen = subparsers.add_parser('generate', help="Generate a deck through a running service")
    gen.add_argument('topic')
    gen.add_argument('--strategy', help="Strategy id (default: chosen from classification)")
    gen.add_argument('--slides', default='auto', help="Slide count or 'auto'")
    gen.add_argument('--purpose')
    gen.add_argument('--no-images', action='store_true', help="Skip image instructions")
    gen.add_argument('--url', default='ws://localhost:8000/ws')
    gen.add_argument('--json', action='store_true', help="Print raw JSON of terminal messages")

    rec = subparsers.add_parser('recover', help="Recover a document from raw model output")
    rec.add_argument('file', help="File with raw output, or - for stdin")

    args = parser.parse_args()

    if args.command == 'recover':
        return recover(args)

    if args.slides != 'auto' and not args.slides.isdigit():
        parser.error("--slides must be a positive integer or 'auto'")

    try:
        return asyncio.run(generate(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
