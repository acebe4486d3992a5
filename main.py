#!/usr/bin/env python3
"""
Main entry point for the dgtools formula engine.
"""

import asyncio
import argparse
import json
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from config.settings import Settings
from formula_engine.core import (
    ArtifactManager,
    Builder,
    Fetcher,
    Installer,
    PackagingEngine,
    Verifier,
    load_completion_templates,
)
from formula_engine.errors import InvalidSpec
from formula_engine.integrations import DescriptorRepository
from formula_engine.utils.logging import get_logger, setup_root_logger


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch, build, install and smoke-test dgtools command-line tools"
    )

    parser.add_argument("--config", type=Path, help="Path to configuration file (JSON format)")
    parser.add_argument("--formulas-dir", type=Path, help="Directory of tool descriptors")
    parser.add_argument(
        "--tool",
        action="append",
        dest="tools",
        metavar="NAME",
        help="Tool to package (repeatable, default: all formulas)"
    )
    parser.add_argument("--prefix", type=Path, help="Install prefix")
    parser.add_argument("--bin-dir", type=Path, help="Executable install directory")
    parser.add_argument("--bash-completion-dir", type=Path, help="Bash completion install directory")
    parser.add_argument("--zsh-completion-dir", type=Path, help="Zsh completion install directory")
    parser.add_argument("--cache-dir", type=Path, help="Source download cache")
    parser.add_argument("--artifacts-dir", type=Path, help="Directory for build logs and run summaries")
    parser.add_argument("--max-concurrent", type=int, help="Maximum tools packaged at once")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for fetch and build steps")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument("--list", action="store_true", help="List available formulas and exit")

    return parser.parse_args(argv)


def load_config(args) -> Settings:
    """Load configuration from file, environment and command line."""
    config_data = {}
    if args.config:
        if not args.config.exists():
            raise ValueError(f"Config file not found: {args.config}")
        with open(args.config) as f:
            config_data = json.load(f) or {}
        if not isinstance(config_data, dict):
            raise ValueError(f"Config file must contain a JSON object: {args.config}")

    # Sections written as null in the file count as empty
    for section in ("install", "fetch", "build", "verify", "artifacts", "logging"):
        if config_data.get(section) is None:
            config_data.pop(section, None)

    install = config_data.setdefault("install", {})
    if args.prefix:
        install["prefix"] = str(args.prefix)
    if args.bin_dir:
        install["bin_dir"] = str(args.bin_dir)
    if args.bash_completion_dir:
        install["bash_completion_dir"] = str(args.bash_completion_dir)
    if args.zsh_completion_dir:
        install["zsh_completion_dir"] = str(args.zsh_completion_dir)
    if args.cache_dir:
        config_data.setdefault("fetch", {})["cache_dir"] = str(args.cache_dir)
    if args.timeout:
        config_data.setdefault("fetch", {})["timeout"] = args.timeout
        config_data.setdefault("build", {})["timeout"] = args.timeout
    if args.artifacts_dir:
        config_data.setdefault("artifacts", {})["base_path"] = str(args.artifacts_dir)
    if args.log_level:
        config_data.setdefault("logging", {})["level"] = args.log_level
    if args.formulas_dir:
        config_data["formulas_dir"] = str(args.formulas_dir)
    if args.max_concurrent:
        config_data["max_concurrent_jobs"] = args.max_concurrent

    return Settings(**config_data)


def build_engine(settings: Settings) -> PackagingEngine:
    """Wire the pipeline components from settings."""
    install = settings.install
    templates = load_completion_templates(
        bash_dir=install.bash_completion_dir,
        zsh_dir=install.zsh_completion_dir,
        template_dir=install.template_dir,
        placeholder=install.placeholder
    )
    return PackagingEngine(
        fetcher=Fetcher(settings.fetch.cache_dir, timeout=settings.fetch.timeout),
        builder=Builder(settings.build.commands, timeout=settings.build.timeout),
        installer=Installer(install.bin_dir, completion_prefix=install.completion_prefix),
        verifier=Verifier(timeout=settings.verify.timeout),
        templates=templates,
        artifact_manager=ArtifactManager(settings.artifacts.base_path),
        max_concurrent_jobs=settings.max_concurrent_jobs
    )


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    settings = load_config(args)

    setup_root_logger(
        settings.logging.file_path,
        settings.logging.level,
        format_string=settings.logging.format,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count
    )
    logger = get_logger(__name__)

    repository = DescriptorRepository(settings.formulas_dir)

    if args.list:
        for name in repository.list_names():
            print(name)
        return 0

    try:
        specs = repository.load_all(args.tools)
    except InvalidSpec as e:
        logger.error(str(e))
        return 1

    if not specs:
        logger.info(f"No formulas found in {settings.formulas_dir}")
        return 0

    engine = build_engine(settings)
    summary = await engine.run_many(specs)

    logger.info("=" * 60)
    logger.info("SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total tools: {summary['total_tools']}")
    logger.info(f"Successful: {summary['successful']}")
    logger.info(f"Failed: {summary['failed']}")
    for outcome in summary["outcomes"]:
        if not outcome.success:
            logger.info(f"  {outcome.tool_name}: {outcome.failed_stage}: {outcome.error}")
    logger.info(f"Duration: {summary['duration_seconds']:.2f} seconds")
    logger.info("=" * 60)

    return 1 if summary["failed"] > 0 else 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
