"""Unit tests for SpeechSync.

This package contains test modules for all components of the SpeechSync engine.
Tests use pytest with asyncio support and replace audio devices, speech engines and
HTTP calls with fakes via monkeypatch.
"""
