"""
Forecasting Teller account and credential service.
"""
