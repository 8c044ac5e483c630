"""Report outputs (Excel workbooks and charts) for Study Clock."""
