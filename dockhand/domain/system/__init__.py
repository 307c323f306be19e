"""
System bounded context: host information and resource metrics.
"""
