"""Shared configuration and logging utilities for the input resolver"""
