"""Test helpers: a mock chain, test contract sources and comparison functions."""