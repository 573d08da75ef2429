"""Test suites and the instances they own."""
from push_testing.suite.instance import InstanceState, TestInstance
from push_testing.suite.suite import TestSuite

__all__ = [
	'InstanceState',
	'TestInstance',
	'TestSuite',
]
