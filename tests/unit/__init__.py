# tests/unit/__init__.py
"""
Unit tests for individual components.

Unit tests focus on one class or module in isolation. Automation
sessions and decision strategies are replaced by the doubles in
tests.fakes; OpenAI clients are mocked.

Guidelines:
- Test one thing at a time
- Use descriptive test names
- Keep tests fast (every delay is zero in test settings)
"""
