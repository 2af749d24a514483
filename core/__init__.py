"""CareBridge core app: transfers, patient data, reports and chat."""
