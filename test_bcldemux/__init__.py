"""
Unit tests and supporting files for bcldemux.

In general the package structure of test_bcldemux mirrors the package
structure of bcldemux, with one or more test cases per class and sometimes
dedicated cases for modules or helper functions.  When test cases need
supporting files (input used to run a test, or expected output for comparison
with results) they refer to a path within test_bcldemux/data/<path> where
<path> corresponds to the location of the test case code.  This is handled by
TestBase.

Binary base call data (BCL and filter files) is written out fresh into
temporary directories by the helpers in test_illumina/test_common.py rather
than stored as supporting files.
"""
