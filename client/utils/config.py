#!/usr/bin/env python
# Configuration for the world atlas client
import argparse
import json
import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

VIEW_CHOICES = ("player", "manage", "editor", "pov")


class Config:
    """Configuration management for the world atlas client"""

    # Default values
    DEFAULT_API_URL = "http://localhost:3001/api"
    DEFAULT_WS_URL = "ws://localhost:3001/api/ws/sync"

    # Echo suppression windows, long enough to outlast a write's broadcast round trip
    DEFAULT_MAP_CHANGE_SUPPRESSION_MS = 1000
    DEFAULT_NAVIGATION_SUPPRESSION_MS = 2000
    DEFAULT_VISIBILITY_SUPPRESSION_MS = 3000

    def __init__(self, config_file: Optional[str] = None):
        self.api_url = self.DEFAULT_API_URL
        self.ws_url = self.DEFAULT_WS_URL
        self.map_change_suppression_ms = self.DEFAULT_MAP_CHANGE_SUPPRESSION_MS
        self.navigation_suppression_ms = self.DEFAULT_NAVIGATION_SUPPRESSION_MS
        self.visibility_suppression_ms = self.DEFAULT_VISIBILITY_SUPPRESSION_MS
        self.config_file = config_file or os.path.expanduser("~/.worldatlas/config.json")

        # Load config if exists
        self.load_config()

    def load_config(self):
        """Load configuration from file if it exists"""
        if not os.path.exists(self.config_file):
            return
        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading config: {e}")
            return

        self.api_url = config_data.get('api_url', self.api_url)
        self.ws_url = config_data.get('ws_url', self.ws_url)
        self.map_change_suppression_ms = int(config_data.get('map_change_suppression_ms', self.map_change_suppression_ms))
        self.navigation_suppression_ms = int(config_data.get('navigation_suppression_ms', self.navigation_suppression_ms))
        self.visibility_suppression_ms = int(config_data.get('visibility_suppression_ms', self.visibility_suppression_ms))

    def save_config(self):
        """Save current configuration to file"""
        config_data = {
            'api_url': self.api_url,
            'ws_url': self.ws_url,
            'map_change_suppression_ms': self.map_change_suppression_ms,
            'navigation_suppression_ms': self.navigation_suppression_ms,
            'visibility_suppression_ms': self.visibility_suppression_ms,
        }
        try:
            os.makedirs(os.path.dirname(self.config_file), exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(config_data, f, indent=2)
        except OSError as e:
            logger.warning(f"Error saving config: {e}")

    def parse_args(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(
            description='World atlas client',
            epilog='After Ctrl-C or SIGTERM the client exits once Enter is pressed.',
        )
        parser.add_argument('--api-url', help='API URL', default=self.api_url)
        parser.add_argument('--ws-url', help='WebSocket URL', default=self.ws_url)
        parser.add_argument('--world', help='World id to open')
        parser.add_argument('--view', choices=VIEW_CHOICES, default='player', help='Which view to run')
        parser.add_argument('--list', action='store_true', help='List worlds and exit')
        parser.add_argument('--save', action='store_true', help='Remember the URLs for next time')
        parser.add_argument('--verbose', action='store_true', help='Debug logging')

        args = parser.parse_args(argv)

        # Update config with command line values
        self.api_url = args.api_url
        self.ws_url = args.ws_url

        if args.save:
            self.save_config()

        return args
