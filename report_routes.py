from flask import Blueprint

import reports
from api_utils import parse_query, success_response
from schemas import (GuestBillingFilters, MonthlyRevenueFilters, RoomOccupancyFilters,
                     ServiceUsageReportFilters, TopServicesFilters)

report_bp = Blueprint('reports', __name__, url_prefix='/api')


@report_bp.route('/monthly-revenue', methods=['GET'])
def monthly_revenue():
    """Revenue per branch and month"""
    return success_response(reports.monthly_revenue(parse_query(MonthlyRevenueFilters)))


@report_bp.route('/room-occupancy', methods=['GET'])
def room_occupancy():
    """Occupancy per room for a date window"""
    return success_response(reports.room_occupancy(parse_query(RoomOccupancyFilters)))


@report_bp.route('/room-occupancy/summary', methods=['GET'])
def room_occupancy_summary():
    """Occupancy totals for a date window"""
    return success_response(reports.room_occupancy_summary(parse_query(RoomOccupancyFilters)))


@report_bp.route('/guest-billing', methods=['GET'])
def guest_billing():
    """Billing details per guest bill"""
    return success_response(reports.guest_billing(parse_query(GuestBillingFilters)))


@report_bp.route('/guest-billing/summary', methods=['GET'])
def guest_billing_summary():
    """Billing totals across guests"""
    return success_response(reports.guest_billing_summary(parse_query(GuestBillingFilters)))


@report_bp.route('/service-usage-breakdown', methods=['GET'])
def service_usage_breakdown():
    """Every service usage record with booking details"""
    return success_response(reports.service_usage_breakdown(parse_query(ServiceUsageReportFilters)))


@report_bp.route('/top-services-trends', methods=['GET'])
def top_services_trends():
    """Services ranked by revenue"""
    return success_response(reports.top_services_trends(parse_query(TopServicesFilters)))


@report_bp.route('/service-usage-summary', methods=['GET'])
def service_usage_summary():
    """Service usage totals"""
    return success_response(reports.service_usage_summary(parse_query(ServiceUsageReportFilters)))
