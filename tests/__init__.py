"""Test suite for otkit."""
