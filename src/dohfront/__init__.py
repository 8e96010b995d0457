"""dohfront package"""
