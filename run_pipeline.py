#!/usr/bin/env python3
"""
Main CLI entrypoint for the ClipSync shorts pipeline.

This is a convenience wrapper that imports and runs the pipeline CLI.
"""

import sys

from clipsync.pipelines.run_pipeline import main

if __name__ == "__main__":
    sys.exit(main())
