"""
Test suite for the CNN tutorial package.
"""
