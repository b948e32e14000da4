"""Test suite for tgrelay."""
