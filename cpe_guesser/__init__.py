"""
CPE Guesser

Guess a CPE entry (``cpe:2.3:a:apache:tomcat``) from free-text keywords.
"""

__version__ = "1.0.0"
