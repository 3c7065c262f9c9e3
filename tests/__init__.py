"""Tests for StargatePortal."""
