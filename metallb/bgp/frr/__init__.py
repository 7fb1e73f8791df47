"""Parsing of JSON status output from the FRR routing daemon."""