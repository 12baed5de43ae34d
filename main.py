# main.py
import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from core.orchestrator import DEFAULT_CONFIG, ChatRequest, Orchestrator

# Load environment variables
load_dotenv()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Turn a natural-language request into repository operations and run them."
    )
    parser.add_argument("input", help="Request text, e.g. \"Find all users\"")
    parser.add_argument("--model", help="Planning model id")
    parser.add_argument("--stream", action="store_true", help="Print newline-delimited JSON events")
    parser.add_argument("--summary", action="store_true", help="Summarize the results in natural language")
    parser.add_argument("--proxy", action="store_true", help="Return the plan without executing it")
    parser.add_argument("--entities", nargs="*", help="Restrict planning to these entities")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG), help="Workflow YAML file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    orchestrator = Orchestrator(args.config)
    if args.debug:
        orchestrator.agent.debug = True
        orchestrator.agent.executor.debug = True

    request = ChatRequest(
        input=args.input,
        model=args.model,
        stream=args.stream,
        summary=args.summary,
        proxy=args.proxy,
        entities=args.entities or None,
    )
    try:
        result = orchestrator.handle(request)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    if args.stream:
        for line in result:
            sys.stdout.write(line)
            sys.stdout.flush()
    else:
        print(json.dumps(result.to_payload(), indent=2, default=str, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
