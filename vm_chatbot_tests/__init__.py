"""
VM Chatbot Tests - Playwright automation for Virgin Media / O2 chat widgets.

This package provides:
- Scripted conversation replay against the live chat widget
- Data-driven question/answer scenarios from CSV
- Error classification with bounded retries
- Screenshots, console logs and JSON reports for failures

Usage:
    CLI: vm-chatbot-tests run
"""

__version__ = "1.0.0"
