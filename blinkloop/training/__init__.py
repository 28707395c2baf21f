"""
training — Training word progression and match detection against the scan.
"""
