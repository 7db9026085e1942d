"""
Partner Procedures

partner.* procedures used by the advisor (partner) dashboard.
"""

from consult_api.rpc import ProcedureRouter

PARTNER = ProcedureRouter("partner")


@PARTNER.query("dashboard")
async def dashboard(workflow, identity, data):
    return await workflow.partner_dashboard(identity)


@PARTNER.query("earnings")
async def earnings(workflow, identity, data):
    return await workflow.partner_earnings(identity)
