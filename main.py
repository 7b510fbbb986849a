"""Exam Score Pipeline - Main Entry Point"""

import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional

import yaml

from src.caching import ValidationCache
from src.config.config_manager import Config, load_config
from src.error_handling import ErrorHandler, ScorePipelineError
from src.scoring import ScoreAggregator, ScorePipeline
from src.storage import RedisStorageProvider, StorageProvider, create_storage_provider
from src.validation import ScoreValidator


class ScorePipelineApp:
    """Wires configuration, storage, cache and pipeline together"""

    def __init__(self):
        self.config: Optional[Config] = None
        self.logger = None
        self.storage: Optional[StorageProvider] = None
        self.cache: Optional[ValidationCache] = None
        self.pipeline: Optional[ScorePipeline] = None
        self.error_handler: Optional[ErrorHandler] = None
        self.running = False

    async def initialize(self, config_file: Optional[str] = None):
        """Initialize the application components"""
        try:
            self.config = load_config(config_file)

            self._setup_logging()
            self.logger = logging.getLogger(__name__)

            self.logger.info("Score pipeline initializing...")
            self.logger.info(f"Environment: {self.config.environment}")
            self.logger.info(f"Storage backend: {self.config.storage.backend}")

            self.error_handler = ErrorHandler()

            self.storage = create_storage_provider(self.config.storage)
            if isinstance(self.storage, RedisStorageProvider):
                await self.storage.initialize()

            self.cache = ValidationCache(
                self.storage,
                config=self.config.cache,
                error_handler=self.error_handler
            )
            await self.cache.start()

            validation = self.config.validation
            validator = ScoreValidator(
                max_component=validation.max_component_score,
                max_total=validation.max_total_score,
                percentage_decimals=validation.percentage_decimals
            )

            self.pipeline = ScorePipeline(
                validator,
                ScoreAggregator(percentage_decimals=validation.percentage_decimals),
                self.cache,
                self.error_handler
            )

            self.running = True
            self.logger.info("Score pipeline initialization complete")

        except Exception as e:
            if self.logger:
                self.logger.error(f"Failed to initialize score pipeline: {e}")
            else:
                print(f"Failed to initialize score pipeline: {e}")
            raise

    async def shutdown(self):
        """Release the cache task and storage connections"""
        if not self.running:
            return

        self.logger.info("Score pipeline shutting down...")

        if self.cache:
            self.cache.dispose()
        if self.storage:
            await self.storage.close()

        self.running = False
        self.logger.info("Score pipeline shutdown complete")

    async def run(self, input_file: str) -> Dict[str, Any]:
        """Process the subjects in `input_file` and return the chart data"""
        if not self.running:
            raise RuntimeError("Application not initialized. Call initialize() first.")

        subjects = self._load_subjects(input_file)
        self.logger.info(f"Processing {len(subjects)} subjects from {input_file}")

        result = await self.pipeline.process(subjects)

        stats = self.pipeline.get_stats()
        self.logger.info(
            f"Done: {stats['cache_hits']} cache hits, {stats['cache_failures']} cache failures, "
            f"{stats['invalid_subjects']} invalid subjects"
        )
        return result.model_dump(mode="json")

    def _load_subjects(self, input_file: str) -> Dict[str, Any]:
        with open(input_file, "r", encoding="utf-8") as f:
            if input_file.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"{input_file} must contain a mapping of subject name to scores")
        return data.get("subjects", data)

    def _setup_logging(self):
        """Setup logging based on configuration"""
        log_config = self.config.logging

        logging.basicConfig(
            level=getattr(logging, log_config.level.upper(), logging.INFO),
            format=log_config.format,
            force=True
        )

        if log_config.file_enabled:
            from logging.handlers import RotatingFileHandler

            log_dir = os.path.dirname(log_config.file_path)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_config.file_path,
                maxBytes=log_config.max_file_size,
                backupCount=log_config.backup_count
            )
            file_handler.setFormatter(logging.Formatter(log_config.format))
            logging.getLogger().addHandler(file_handler)


async def run_app(args) -> int:
    app = ScorePipelineApp()

    def signal_handler(signum, frame):
        print(f"\nReceived signal {signum}, shutting down gracefully...")
        if app.running:
            asyncio.create_task(app.shutdown())

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await app.initialize(config_file=args.config)
        result = await app.run(args.input)
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return 1 if result["errors"] else 0
    except (ScorePipelineError, ValueError, OSError) as e:
        print(f"Fatal error: {e}")
        return 2
    finally:
        await app.shutdown()


def main():
    """Command line entry point"""
    import argparse
    parser = argparse.ArgumentParser(description="Exam Score Pipeline")
    parser.add_argument("input", nargs="?", help="JSON or YAML file of subject scores")
    parser.add_argument("--config", help="Configuration file path", default="config.yaml")
    parser.add_argument("--write-sample-config", metavar="PATH", help="Write the default configuration and exit")
    args = parser.parse_args()

    if args.write_sample_config:
        from src.config.config_manager import ConfigManager
        ConfigManager().save_sample_config(args.write_sample_config)
        return

    if not args.input:
        parser.error("an input file is required")

    try:
        sys.exit(asyncio.run(run_app(args)))
    except KeyboardInterrupt:
        print("\nExiting...")


if __name__ == "__main__":
    main()
