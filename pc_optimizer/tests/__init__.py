"""Tests for pc_optimizer."""
