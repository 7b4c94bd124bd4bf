"""Embedded resource definition documents."""
