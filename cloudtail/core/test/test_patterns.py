import unittest

from cloudtail.core.patterns import compile_pattern, glob_to_regex
from cloudtail.exceptions import PatternCompileError


class TestPatterns__glob(unittest.TestCase):

    def test_glob_matches_whole_name(self):
        matches = compile_pattern('2024/01/15/*')
        self.assertTrue(matches('2024/01/15/abc'))
        self.assertFalse(matches('2024/01/16/abc'))
        self.assertFalse(matches('x2024/01/15/abc'))

    def test_question_mark_matches_one_character(self):
        matches = compile_pattern('web-?')
        self.assertTrue(matches('web-1'))
        self.assertFalse(matches('web-12'))
        self.assertFalse(matches('web-'))

    def test_regex_metacharacters_are_literal(self):
        matches = compile_pattern('app[1].log')
        self.assertTrue(matches('app[1].log'))
        self.assertFalse(matches('app1xlog'))

    def test_glob_without_wildcards_is_exact(self):
        matches = compile_pattern('ERR')
        self.assertTrue(matches('ERR'))
        self.assertFalse(matches('my-ERR-stream'))

    def test_glob_to_regex(self):
        self.assertEqual(glob_to_regex('a*b?'), '^a.*b.$')


class TestPatterns__regex(unittest.TestCase):

    def test_regex_searches_anywhere(self):
        matches = compile_pattern('ERR', is_regex=True)
        self.assertTrue(matches('my-ERR-stream'))
        self.assertFalse(matches('my-stream'))

    def test_regex_anchors_are_honored(self):
        matches = compile_pattern(r'^2024.*\[\w+\]$', is_regex=True)
        self.assertTrue(matches('2024/01/15/[$LATEST]'))
        self.assertFalse(matches('x2024/01/15/[$LATEST]'))

    def test_malformed_regex_raises_PatternCompileError(self):
        with self.assertRaises(PatternCompileError) as cm:
            compile_pattern('(unclosed', is_regex=True)
        self.assertEqual(cm.exception.pattern, '(unclosed')
        self.assertIn('(unclosed', str(cm.exception))


class TestPatterns__no_pattern(unittest.TestCase):

    def test_none_matches_everything(self):
        matches = compile_pattern(None)
        self.assertTrue(matches('anything'))
        self.assertTrue(matches(''))

    def test_empty_string_matches_everything(self):
        self.assertTrue(compile_pattern('', is_regex=True)('anything'))
