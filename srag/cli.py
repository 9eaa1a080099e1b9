from __future__ import annotations
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Settings, load_settings
from .errors import SragError
from .llm_client import LLMClient
from .logging_utils import setup_logging
from .providers.types import GenerationOptions
from .record_extractor import RecordExtractor
from .schema import JSONSchema
from .schema_predictor import SchemaPredictor

DOCUMENT_SUFFIXES = (".txt", ".md", ".html", ".htm")


def collect_documents(paths: List[str]) -> List[Path]:
    """Expand directories into their document files (sorted); keep explicit files as given."""
    out: List[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            out.extend(sorted(f for f in p.iterdir() if f.is_file() and f.suffix.lower() in DOCUMENT_SUFFIXES))
        else:
            out.append(p)
    return out


def read_documents(documents: List[str]) -> Optional[Tuple[List[Path], List[str]]]:
    """Resolve and read the documents; prints the problem and returns None on failure."""
    paths = collect_documents(documents)
    if not paths:
        print("No documents given", file=sys.stderr)
        return None
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        print(f"Document not found: {', '.join(missing)}", file=sys.stderr)
        return None
    texts: List[str] = []
    for p in paths:
        try:
            texts.append(p.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            print(f"Cannot read document {p}: {e}", file=sys.stderr)
            return None
    return paths, texts


def cmd_models(settings: Settings) -> int:
    try:
        client = LLMClient(settings=settings)
    except SragError as e:
        print(str(e), file=sys.stderr)
        return 2
    for m in client.available_models():
        print(m)
    return 0


def cmd_extract(
    settings: Settings,
    schema_path: Path,
    documents: List[str],
    *,
    options: GenerationOptions,
    batch_size: Optional[int],
    template: Optional[Path],
    out: Optional[Path],
) -> int:
    try:
        schema = JSONSchema.from_file(schema_path)
    except OSError as e:
        print(f"Schema not found: {e}", file=sys.stderr)
        return 2
    except SragError as e:
        print(str(e), file=sys.stderr)
        return 3

    loaded = read_documents(documents)
    if loaded is None:
        return 2
    paths, texts = loaded

    try:
        client = LLMClient(settings=settings)
        extractor = RecordExtractor(client, prompt_template_path=template)
        records = asyncio.run(extractor.batch_extract(texts, schema, batch_size, options))
    except SragError as e:
        print(f"Extraction failed: {e}", file=sys.stderr)
        return 1

    payload = json.dumps(
        [{"source": str(p), "data": r.to_dict()} for p, r in zip(paths, records)],
        indent=2,
        ensure_ascii=False,
    )
    if out:
        try:
            out.write_text(payload + "\n", encoding="utf-8")
        except OSError as e:
            print(f"Cannot write output: {e}", file=sys.stderr)
            return 1
        print(f"Wrote {len(records)} records to {out}")
    else:
        print(payload)
    return 0


def cmd_predict_schema(
    settings: Settings,
    documents: List[str],
    *,
    options: GenerationOptions,
    questions: Optional[Path],
    iterations: Optional[int],
    out: Optional[Path],
    version: Optional[int],
) -> int:
    loaded = read_documents(documents)
    if loaded is None:
        return 2
    _, texts = loaded
    qs: List[str] = []
    if questions:
        try:
            qs = [line.strip() for line in questions.read_text(encoding="utf-8").splitlines() if line.strip()]
        except (OSError, UnicodeDecodeError) as e:
            print(f"Cannot read questions: {e}", file=sys.stderr)
            return 2

    try:
        client = LLMClient(settings=settings)
        predictor = SchemaPredictor(client)
        schema = asyncio.run(predictor.predict_schema(texts, qs, iterations=iterations, options=options))
    except SragError as e:
        print(f"Schema prediction failed: {e}", file=sys.stderr)
        return 1

    if out:
        try:
            written = predictor.save_schema(schema, out, version)
        except OSError as e:
            print(f"Cannot write output: {e}", file=sys.stderr)
            return 1
        print(f"Wrote schema to {written} ({schema.summary()})")
    else:
        print(schema.to_json(pretty=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="srag", description="Structured record extraction with LLMs")
    p.add_argument("command", choices=["extract", "predict-schema", "models"], help="CLI command")
    p.add_argument("documents", nargs="*", help="Document files or directories (for extract and predict-schema)")
    p.add_argument("--schema", dest="schema", default=None, help="Schema JSON file (required for extract)")
    p.add_argument("--model", dest="model", default=None, help="Model identifier (default: DEFAULT_LLM_MODEL)")
    p.add_argument("--temperature", dest="temperature", type=float, default=None, help="Sampling temperature")
    p.add_argument("--max-tokens", dest="max_tokens", type=int, default=None, help="Max output tokens")
    p.add_argument("--batch-size", dest="batch_size", type=int, default=None, help="Documents extracted concurrently")
    p.add_argument("--template", dest="template", default=None, help="Custom prompt template file")
    p.add_argument("--out", dest="out", default=None, help="Write records (or the predicted schema) here instead of stdout")
    p.add_argument("--questions", dest="questions", default=None, help="File with one question per line (for predict-schema)")
    p.add_argument("--iterations", dest="iterations", type=int, default=None, help="Schema prediction passes (default: SCHEMA_NUM_ITERATIONS)")
    p.add_argument("--version", dest="version", type=int, default=None, help="Save the predicted schema as <name>.v<N>.json")
    p.add_argument("--log-level", dest="log_level", default=None, help="Override LOG_LEVEL")
    return p


def main(argv: List[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_json)

    if args.command == "models":
        return cmd_models(settings)
    try:
        options = GenerationOptions(model=args.model, temperature=args.temperature, max_tokens=args.max_tokens)
    except ValueError as e:
        print(f"Invalid generation options: {e}", file=sys.stderr)
        return 2
    if args.command == "predict-schema":
        if args.iterations is not None and args.iterations < 1:
            print("--iterations must be >= 1", file=sys.stderr)
            return 2
        return cmd_predict_schema(
            settings,
            args.documents,
            options=options,
            questions=Path(args.questions) if args.questions else None,
            iterations=args.iterations,
            out=Path(args.out) if args.out else None,
            version=args.version,
        )
    if args.command == "extract":
        if not args.schema:
            print("--schema is required for extract", file=sys.stderr)
            return 2
        if args.batch_size is not None and args.batch_size < 1:
            print("--batch-size must be >= 1", file=sys.stderr)
            return 2
        return cmd_extract(
            settings,
            Path(args.schema),
            args.documents,
            options=options,
            batch_size=args.batch_size,
            template=Path(args.template) if args.template else None,
            out=Path(args.out) if args.out else None,
        )
    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
