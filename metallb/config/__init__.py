"""Parsing and validation of the load balancer configuration, with label selectors."""